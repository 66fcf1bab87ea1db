"""specks core library."""
