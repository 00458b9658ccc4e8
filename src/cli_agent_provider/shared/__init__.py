"""Protocol parsing and invocation helpers shared by the provider and the server."""
