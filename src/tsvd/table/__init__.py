"""In-memory table model and spreadsheet coordinate codec."""

from tsvd.table.coords import (
    CellAddress,
    format_cell_address,
    index_to_label,
    label_to_index,
    parse_cell_address,
)
from tsvd.table.model import (
    DELIMITER,
    Table,
    clone_table,
    column_count,
    parse_delimited,
    parse_labeled,
    render_labeled,
    serialize,
)

__all__ = [
    "DELIMITER",
    "CellAddress",
    "Table",
    "clone_table",
    "column_count",
    "format_cell_address",
    "index_to_label",
    "label_to_index",
    "parse_cell_address",
    "parse_delimited",
    "parse_labeled",
    "render_labeled",
    "serialize",
]
