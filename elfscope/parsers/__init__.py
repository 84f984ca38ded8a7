"""Pure decoders for the ELF file header and tables."""
