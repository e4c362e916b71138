# ==============================================================================
# app/calculator/schema.py
# ------------------------------------------------------------------------------
# Defines the expected structure of the sales import spreadsheet.
# This schema is the single source of truth for the validator.
# ==============================================================================

SALES_SHEET = 'Vendas'

EXPECTED_SHEETS = {
    SALES_SHEET: {
        'required_columns': [
            'Cliente', 'Tipo', 'Quantidade', 'Valor Proposto', 'Valor Vendido',
            'Margem (%)', 'Forma de Pagamento', 'Data'
        ],
        'numeric_columns': ['Quantidade', 'Valor Proposto', 'Valor Vendido', 'Margem (%)'],
        'date_columns': ['Data']
    }
}

# Spreadsheet column -> Sale field
SALES_COLUMN_MAP = {
    'Cliente': 'client',
    'Tipo': 'product_type',
    'Quantidade': 'quantity',
    'Valor Proposto': 'value_proposed',
    'Valor Vendido': 'value_sold',
    'Margem (%)': 'margin_percent',
    'Forma de Pagamento': 'payment_method',
    'Data': 'date'
}
