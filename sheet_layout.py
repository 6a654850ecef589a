"""
Fixed cell layout of the import and template workbooks.

All row and column numbers are 1-indexed, exactly as they appear in Excel.
"""
import os
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SheetLayout:
    """
    Positions used to read the import sheet and write the template sheet.

    Attributes:
        import_header_row: Row holding the import column labels
        import_first_data_row: First import row that carries an article
        import_scale_column: Column holding the size scale ("Numeri" or alpha)
        import_sizes_start_column: First column of the size-quantity vector
        model_label / fabric_label / color_label: Header labels of the key columns
        template_first_data_row: First template row scanned for a SKU
        template_model_column / template_fabric_column / template_color_column:
            Fixed key columns of the template sheet
        alpha_start_column: Destination of alpha-scale sizes (AK)
        numeric_man_start_column: Destination of numeric sizes for men (AA)
        numeric_woman_start_column: Destination of numeric sizes for women (AS)
        gender_aware: When False the woman flag is ignored entirely
        numeric_scale_value: Lowercased scale text that marks a numeric scale
        woman_first_size_label: Header of the first woman numeric size column
    """
    import_header_row: int = 5
    import_first_data_row: int = 6
    import_scale_column: int = 5
    import_sizes_start_column: int = 6
    model_label: str = "Model"
    fabric_label: str = "Fabric"
    color_label: str = "Color Code"

    template_first_data_row: int = 8
    template_model_column: int = 3
    template_fabric_column: int = 4
    template_color_column: int = 5

    alpha_start_column: int = 37
    numeric_man_start_column: int = 27
    numeric_woman_start_column: int = 45
    gender_aware: bool = True

    numeric_scale_value: str = "numeri"
    woman_first_size_label: str = "34"

    def key_labels(self):
        return (self.model_label, self.fabric_label, self.color_label)

    def start_column(self, is_numeric_scale: bool, is_woman: bool) -> int:
        """Destination column of the first size value for a matched row."""
        if not is_numeric_scale:
            return self.alpha_start_column
        if self.gender_aware and is_woman:
            return self.numeric_woman_start_column
        return self.numeric_man_start_column


def _env_flag(name: str, default: bool) -> bool:
    value: Optional[str] = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes"}


DEFAULT_LAYOUT = SheetLayout()


def layout_from_env() -> SheetLayout:
    """Default layout, switched to the gender-less variant when GENDER_AWARE is off."""
    return SheetLayout(gender_aware=_env_flag("GENDER_AWARE", True))
