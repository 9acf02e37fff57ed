"""Search a book catalog and keep want-to-read / read shelves."""
