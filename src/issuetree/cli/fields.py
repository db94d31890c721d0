"""Fields command: list a project's fields and their options."""

from ..config import Settings
from ..orchestration import RunContext
from ..repositories import IssueRepository
from .common import open_project, run_command
from .output import header, info


def run_fields(settings: Settings, project: str | None) -> int:
    """Print every field of the project, marking the ones that cannot be set."""

    def command(context: RunContext, repository: IssueRepository) -> int:
        target_project = open_project(context, repository, project)
        fields = context.schema.fields()

        title = f" ({target_project.title})" if target_project.title else ""
        header(f"Fields of {target_project}{title}:")
        for schema in fields:
            suffix = "" if schema.is_settable else " [read-only]"
            print(f"  {schema.name} ({schema.data_type}){suffix}")
            for option in schema.options:
                print(f"    - {option.name}")

        print()
        info(f"{len(fields)} field(s)")
        return 0

    return run_command(settings, command)
