# Shared helpers used by both the API and the client
