from .scatter_module import scatterplot_module
from .summary_module import summary_module
from .table_module import data_table_module
from .transformators import add_rownames, group_summary, head_transformator

__all__ = [
    "add_rownames",
    "data_table_module",
    "group_summary",
    "head_transformator",
    "scatterplot_module",
    "summary_module",
]
