"""GraphQL query templates for GitHub issues, sub-issues and Projects."""

# Fields read for every issue in a hierarchy, including its project items
# and their current field values
ISSUE_NODE_FRAGMENT = """
fragment IssueNodeFields on Issue {
  id
  number
  title
  state
  repository {
    nameWithOwner
  }
  projectItems(first: 50) {
    pageInfo {
      hasNextPage
    }
    nodes {
      id
      project {
        id
      }
      fieldValues(first: 30) {
        nodes {
          ... on ProjectV2ItemFieldSingleSelectValue {
            name
            field {
              ... on ProjectV2FieldCommon {
                name
              }
            }
          }
          ... on ProjectV2ItemFieldTextValue {
            text
            field {
              ... on ProjectV2FieldCommon {
                name
              }
            }
          }
          ... on ProjectV2ItemFieldNumberValue {
            number
            field {
              ... on ProjectV2FieldCommon {
                name
              }
            }
          }
          ... on ProjectV2ItemFieldDateValue {
            date
            field {
              ... on ProjectV2FieldCommon {
                name
              }
            }
          }
          ... on ProjectV2ItemFieldIterationValue {
            title
            field {
              ... on ProjectV2FieldCommon {
                name
              }
            }
          }
        }
      }
    }
  }
}
"""

# Query to get a user's project by number
GET_USER_PROJECT = """
query GetUserProject($owner: String!, $number: Int!) {
  user(login: $owner) {
    projectV2(number: $number) {
      id
      number
      title
      closed
    }
  }
}
"""

# Query to get an organization's project by number
GET_ORG_PROJECT = """
query GetOrgProject($owner: String!, $number: Int!) {
  organization(login: $owner) {
    projectV2(number: $number) {
      id
      number
      title
      closed
    }
  }
}
"""

# Query to list project fields, one page at a time
GET_PROJECT_FIELDS = """
query GetProjectFields($projectId: ID!, $first: Int!, $cursor: String) {
  node(id: $projectId) {
    ... on ProjectV2 {
      fields(first: $first, after: $cursor) {
        pageInfo {
          hasNextPage
          endCursor
        }
        nodes {
          ... on ProjectV2Field {
            id
            name
            dataType
          }
          ... on ProjectV2SingleSelectField {
            id
            name
            dataType
            options {
              id
              name
            }
          }
          ... on ProjectV2IterationField {
            id
            name
            dataType
            configuration {
              iterations {
                id
                title
              }
            }
          }
        }
      }
    }
  }
}
"""

# Query to get an issue by node ID
GET_ISSUE = (
    """
query GetIssue($issueId: ID!) {
  node(id: $issueId) {
    ...IssueNodeFields
  }
}
"""
    + ISSUE_NODE_FRAGMENT
)

# Query to get an issue by repository and number
GET_ISSUE_BY_NUMBER = (
    """
query GetIssueByNumber($owner: String!, $repo: String!, $number: Int!) {
  repository(owner: $owner, name: $repo) {
    issue(number: $number) {
      ...IssueNodeFields
    }
  }
}
"""
    + ISSUE_NODE_FRAGMENT
)

# Query to list an issue's sub-issues, one page at a time
GET_SUB_ISSUES = (
    """
query GetSubIssues($issueId: ID!, $first: Int!, $cursor: String) {
  node(id: $issueId) {
    ... on Issue {
      subIssues(first: $first, after: $cursor) {
        pageInfo {
          hasNextPage
          endCursor
        }
        nodes {
          ...IssueNodeFields
        }
      }
    }
  }
}
"""
    + ISSUE_NODE_FRAGMENT
)

# Query to get an issue's parent
GET_PARENT_ISSUE = (
    """
query GetParentIssue($issueId: ID!) {
  node(id: $issueId) {
    ... on Issue {
      parent {
        ...IssueNodeFields
      }
    }
  }
}
"""
    + ISSUE_NODE_FRAGMENT
)

# Mutation to link a child issue under a parent
ADD_SUB_ISSUE = """
mutation AddSubIssue($issueId: ID!, $subIssueId: ID!) {
  addSubIssue(input: { issueId: $issueId, subIssueId: $subIssueId }) {
    issue {
      id
    }
    subIssue {
      id
    }
  }
}
"""

# Mutation to unlink a child issue from its parent
REMOVE_SUB_ISSUE = """
mutation RemoveSubIssue($issueId: ID!, $subIssueId: ID!) {
  removeSubIssue(input: { issueId: $issueId, subIssueId: $subIssueId }) {
    issue {
      id
    }
    subIssue {
      id
    }
  }
}
"""

# Aliased sub-operations of a batched field mutation.
# Formatted with alias (m0, m1, ...) and variable name (input0, input1, ...).
UPDATE_FIELD_OPERATION = (
    "{alias}: updateProjectV2ItemFieldValue(input: ${variable}) {{ projectV2Item {{ id }} }}"
)
CLEAR_FIELD_OPERATION = (
    "{alias}: clearProjectV2ItemFieldValue(input: ${variable}) {{ projectV2Item {{ id }} }}"
)
UPDATE_FIELD_INPUT_TYPE = "UpdateProjectV2ItemFieldValueInput!"
CLEAR_FIELD_INPUT_TYPE = "ClearProjectV2ItemFieldValueInput!"
BATCH_MUTATION = "mutation BatchUpdate({declarations}) {{ {operations} }}"
