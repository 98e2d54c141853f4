import pathlib as pl

FileType = str | pl.Path
# Environment passed to external commands, as `KEY=value` mapping
EnvType = dict[str, str]
# Project ID -> ordered cluster names
TopologyType = dict[str, list[str]]
