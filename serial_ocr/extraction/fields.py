"""Business fields recognized on invoices, warranty cards and receipts."""

from enum import Enum


class FieldName(str, Enum):
    """
    Target fields of the extraction.

    Values are the camelCase keys used by the data-entry forms.
    """
    SERIAL_NUMBER = "serialNumber"
    PRODUCT_NAME = "productName"
    INVOICE_NUMBER = "invoiceNumber"
    SUPPLIER_NAME = "supplierName"
    COST_PRICE = "costPrice"
    SALE_PRICE = "salePrice"
    CUSTOMER_NAME = "customerName"
    CUSTOMER_PHONE = "customerPhone"
    WARRANTY_START_DATE = "warrantyStartDate"
    WARRANTY_END_DATE = "warrantyEndDate"
    WARRANTY_MONTHS = "warrantyMonths"
    PURCHASE_DATE = "purchaseDate"
    SALE_DATE = "saleDate"

    def __str__(self) -> str:
        return self.value
