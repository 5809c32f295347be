"""Data models shared by the feed, the build pipeline and the driver."""
