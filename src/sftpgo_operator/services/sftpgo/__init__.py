"""SFTPGo REST API adapter."""
