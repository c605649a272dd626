"""Built-in svclogin commands."""
