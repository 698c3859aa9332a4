"""docstash backup — publish scrape snapshots to a remote repository."""

from docstash.backup.github import BackupFile, BackupStore, GitHubBackup

__all__ = ["BackupFile", "BackupStore", "GitHubBackup"]
