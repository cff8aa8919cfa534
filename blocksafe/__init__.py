"""BlockSafe: streaming validation and sanitization of block-structured files."""
