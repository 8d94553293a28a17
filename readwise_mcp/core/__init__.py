"""Settings and logging shared by every transport."""
