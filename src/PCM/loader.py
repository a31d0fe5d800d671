import typing

import pandas as pd


def load_template_matrix(workbook_path: str, sheet_name: typing.Union[int, str] = 0) -> list[list[str]]:
    """
    Read one worksheet of a cohort template as a matrix of strings:
      - no header inference (row 0 = titles, row 1 = secondary tokens, rows 2+ = data)
      - every cell read as text
      - empty cells become "" ("na", "NA" and "None" stay text)
      - trailing all-empty rows are dropped
    """

    df = pd.read_excel(
        workbook_path, sheet_name=sheet_name, header=None, dtype=str, keep_default_na=False, engine="openpyxl"
    )
    df = df.fillna("")

    matrix = [[str(value) for value in row] for row in df.itertuples(index=False, name=None)]
    while matrix and not any(matrix[-1]):
        matrix.pop()
    return matrix


def write_template_matrix(matrix: typing.Sequence[typing.Sequence[str]], workbook_path: str, sheet_name: str = "cohort") -> None:
    """Write a string matrix (header rows included) to a single-sheet workbook."""
    df = pd.DataFrame(list(matrix))
    df.to_excel(workbook_path, sheet_name=sheet_name, header=False, index=False, engine="openpyxl")
