# ==============================================================================
# app/calculator/validator.py
# ------------------------------------------------------------------------------
# Handles the validation of the uploaded sales spreadsheet's structure and
# data types, and turns valid rows into sale fields.
# ==============================================================================

import re
import pandas as pd
from app.models import PRODUCT_TYPES
from .payments import strip_diacritics
from .schema import EXPECTED_SHEETS, SALES_COLUMN_MAP, SALES_SHEET

_ISO_DATE = re.compile(r'^\d{4}-\d{2}-\d{2}')


def _normalize_number_text(value):
    """'1.234,50' -> '1234.50'; 'R$ 10' -> '10'; plain numbers pass through."""
    if pd.isna(value):
        return value
    if isinstance(value, (int, float)):
        return value
    text = str(value).replace('R$', '').replace('%', '').strip()
    if ',' in text:
        text = text.replace('.', '').replace(',', '.')
    return text

def parse_number(value):
    if pd.isna(value):
        return None
    return float(_normalize_number_text(value))

def parse_date(value):
    """A 'YYYY-MM-DD' string, or None when the cell is not a date."""
    if pd.isna(value):
        return None
    if hasattr(value, 'strftime'):
        return value.strftime('%Y-%m-%d')
    text = str(value).strip()
    if _ISO_DATE.match(text):
        return text[:10]
    parsed = pd.to_datetime(text, dayfirst=True, errors='coerce')
    return None if pd.isna(parsed) else parsed.strftime('%Y-%m-%d')

def parse_product_type(value):
    if pd.isna(value) or not str(value).strip():
        return 'BASICA'
    return strip_diacritics(str(value).strip().upper())

def validate_excel_file(filepath, payment_methods=None):
    """
    Validates the structure and basic data types of the uploaded workbook.

    Args:
        filepath (str or file-like): The uploaded .xlsx file.
        payment_methods (list, optional): Registered payment methods; when
            given, every sale row must use one of them.

    Returns:
        tuple: A tuple containing:
            - dict: A dictionary of pandas DataFrames if validation is successful.
            - list: A list of human-readable error messages if validation fails.
    """
    errors = []
    dataframes = {}

    try:
        xls = pd.ExcelFile(filepath)
        sheet_names = xls.sheet_names
    except Exception as e:
        errors.append(f"Arquivo Excel inválido ou ilegível. Erro técnico: {e}")
        return None, errors

    # 1. Check for presence of all required sheets
    for sheet_name in EXPECTED_SHEETS:
        if sheet_name not in sheet_names:
            errors.append(f"A planilha obrigatória '{sheet_name}' não foi encontrada no arquivo.")

    if errors:
        xls.close()
        return None, errors

    # 2. Check each sheet for required columns and data types
    for sheet_name, rules in EXPECTED_SHEETS.items():
        try:
            df = pd.read_excel(xls, sheet_name=sheet_name)

            # 2a. Required columns
            missing_columns = [col for col in rules['required_columns'] if col not in df.columns]
            if missing_columns:
                errors.append(f"Na planilha '{sheet_name}', colunas obrigatórias ausentes: {', '.join(missing_columns)}")
                continue

            # 2b. Numeric columns: non-empty cells must parse as numbers
            for col in rules['numeric_columns']:
                numeric_series = pd.to_numeric(df[col].map(_normalize_number_text), errors='coerce')
                invalid_rows = df[numeric_series.isna() & df[col].notna()]
                for index in invalid_rows.index:
                    value = invalid_rows.loc[index, col]
                    errors.append(
                        f"Erro na planilha '{sheet_name}', linha {index + 2}: "
                        f"o valor '{value}' na coluna '{col}' deve ser um número."
                    )

            # 2c. Date columns: every row needs a parseable date
            for col in rules.get('date_columns', []):
                for index, value in df[col].items():
                    if parse_date(value) is None:
                        errors.append(
                            f"Erro na planilha '{sheet_name}', linha {index + 2}: "
                            f"a coluna '{col}' precisa de uma data válida."
                        )

            # 2d. Product types
            if sheet_name == SALES_SHEET:
                for index, value in df['Tipo'].items():
                    if parse_product_type(value) not in PRODUCT_TYPES:
                        errors.append(
                            f"Erro na planilha '{sheet_name}', linha {index + 2}: "
                            f"tipo de produto '{value}' desconhecido."
                        )

            # 2e. Payment methods must be registered ones
            if sheet_name == SALES_SHEET and payment_methods:
                for index, value in df['Forma de Pagamento'].items():
                    if pd.isna(df.loc[index, 'Cliente']):
                        continue
                    label = '' if pd.isna(value) else str(value).strip()
                    if label not in payment_methods:
                        errors.append(
                            f"Erro na planilha '{sheet_name}', linha {index + 2}: "
                            f"forma de pagamento '{label}' não cadastrada."
                        )

            dataframes[sheet_name] = df

        except Exception as e:
            errors.append(f"Erro ao ler a planilha '{sheet_name}'. Erro técnico: {e}")

    xls.close()
    if errors:
        return None, errors

    return dataframes, []

def extract_sales_rows(df):
    """Maps a validated 'Vendas' sheet to a list of sale field dicts, skipping rows without a client."""
    rows = []
    for _, row in df.iterrows():
        client = row.get('Cliente')
        if pd.isna(client) or not str(client).strip():
            continue
        data = {}
        for column, field in SALES_COLUMN_MAP.items():
            value = row.get(column)
            if column in EXPECTED_SHEETS[SALES_SHEET]['numeric_columns']:
                data[field] = parse_number(value) or 0
            elif column == 'Data':
                data[field] = parse_date(value)
            elif column == 'Tipo':
                data[field] = parse_product_type(value)
            else:
                data[field] = None if pd.isna(value) else str(value).strip()
        rows.append(data)
    return rows
