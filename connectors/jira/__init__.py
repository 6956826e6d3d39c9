from connectors.jira.jira_jwt import (
    JiraConnectVerifier,
    create_query_string_hash,
    decode_connect_jwt,
    extract_connect_token,
)

__all__ = [
    "JiraConnectVerifier",
    "create_query_string_hash",
    "decode_connect_jwt",
    "extract_connect_token",
]
