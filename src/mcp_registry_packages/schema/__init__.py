"""JSON schema artifacts shipped with the package."""

SERVER_SCHEMA = "server.schema.json"
