# tests/test_validator.py

import pandas as pd
import pytest

from app.calculator.validator import (extract_sales_rows, parse_date, parse_number,
                                      parse_product_type, validate_excel_file)

COLUMNS = ['Cliente', 'Tipo', 'Quantidade', 'Valor Proposto', 'Valor Vendido',
           'Margem (%)', 'Forma de Pagamento', 'Data']


def write_workbook(path, rows, sheet_name='Vendas', columns=COLUMNS):
    df = pd.DataFrame(rows, columns=columns)
    with pd.ExcelWriter(path) as writer:
        df.to_excel(writer, sheet_name=sheet_name, index=False)
    return path


@pytest.fixture
def valid_rows():
    return [
        ['Mercado Bom Preço', 'Básica', 10, '1.234,50', 1200, '1,5', 'À vista / Antecipado', '2025-03-10'],
        ['Padaria Central', 'NATAL', 2, 300, 290, 4.2, 'À prazo', '15/03/2025'],
        [None, None, None, None, None, None, None, '2025-03-11'],
    ]


def test_parsers():
    assert parse_number('1.234,50') == 1234.5
    assert parse_number('R$ 10') == 10
    assert parse_number(3) == 3
    assert parse_number(float('nan')) is None
    assert parse_date('15/03/2025') == '2025-03-15'
    assert parse_date('2025-03-10T12:00:00') == '2025-03-10'
    assert parse_date('not a date') is None
    assert parse_product_type('básica') == 'BASICA'
    assert parse_product_type(None) == 'BASICA'


def test_valid_workbook_is_accepted_and_rows_extracted(tmp_path, valid_rows):
    path = write_workbook(tmp_path / 'vendas.xlsx', valid_rows)
    dataframes, errors = validate_excel_file(str(path))
    assert errors == []

    rows = extract_sales_rows(dataframes['Vendas'])
    assert len(rows) == 2
    assert rows[0] == {
        'client': 'Mercado Bom Preço', 'product_type': 'BASICA', 'quantity': 10,
        'value_proposed': 1234.5, 'value_sold': 1200, 'margin_percent': 1.5,
        'payment_method': 'À vista / Antecipado', 'date': '2025-03-10',
    }
    assert rows[1]['product_type'] == 'NATAL'
    assert rows[1]['date'] == '2025-03-15'


def test_missing_sheet(tmp_path, valid_rows):
    path = write_workbook(tmp_path / 'vendas.xlsx', valid_rows, sheet_name='Planilha1')
    dataframes, errors = validate_excel_file(str(path))
    assert dataframes is None
    assert errors == ["A planilha obrigatória 'Vendas' não foi encontrada no arquivo."]


def test_missing_columns(tmp_path):
    path = write_workbook(tmp_path / 'vendas.xlsx', [['Cliente X', 10]], columns=['Cliente', 'Quantidade'])
    _, errors = validate_excel_file(str(path))
    assert len(errors) == 1
    assert 'colunas obrigatórias ausentes' in errors[0]
    assert 'Margem (%)' in errors[0]


def test_row_level_errors_report_the_spreadsheet_line(tmp_path):
    rows = [
        ['Cliente A', 'BASICA', 'dez', 100, 100, 1, 'PIX', '2025-03-10'],
        ['Cliente B', 'ESPECIAL', 1, 100, 100, 1, 'PIX', 'ontem'],
    ]
    path = write_workbook(tmp_path / 'vendas.xlsx', rows)
    dataframes, errors = validate_excel_file(str(path))
    assert dataframes is None
    assert any("linha 2" in e and "'Quantidade'" in e for e in errors)
    assert any("linha 3" in e and "'Data'" in e for e in errors)
    assert any("linha 3" in e and "ESPECIAL" in e for e in errors)


def test_unreadable_file(tmp_path):
    path = tmp_path / 'vendas.xlsx'
    path.write_text('not a workbook')
    dataframes, errors = validate_excel_file(str(path))
    assert dataframes is None
    assert errors[0].startswith('Arquivo Excel inválido ou ilegível.')


def test_payment_methods_must_be_registered_when_a_list_is_given(tmp_path, valid_rows):
    path = write_workbook(tmp_path / 'vendas.xlsx', valid_rows)
    _, errors = validate_excel_file(str(path), payment_methods=['À vista / Antecipado'])
    # the row without a client is skipped, like in extract_sales_rows
    assert errors == ["Erro na planilha 'Vendas', linha 3: forma de pagamento 'À prazo' não cadastrada."]

    dataframes, errors = validate_excel_file(str(path), payment_methods=['À vista / Antecipado', 'À prazo'])
    assert errors == []
    assert len(extract_sales_rows(dataframes['Vendas'])) == 2
