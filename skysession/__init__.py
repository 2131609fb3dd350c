"""Remote session lifecycle: deploy, share, join, and tear down game servers."""
