# campops_console/config/settings.py
# CENTRALIZED CONFIGURATION HUB

import logging
from typing import Dict, List, Literal

from pydantic import BaseModel, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict

settings_logger = logging.getLogger(__name__)

# --- Nested Models for Structured Configuration ---
class TestCatalogEntry(BaseModel):
    code: str
    price: float

class WorkflowConfig(BaseModel):
    overdue_grace_days: int = 1; pending_closure_days: int = 3
    large_collection_threshold: int = 1000; display_window: int = 10
    page_size: int = 15

class VendorOption(BaseModel):
    label: str
    value: str

# --- Main Settings Class ---
class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix='CAMPOPS_', case_sensitive=False, env_file='.env', env_file_encoding='utf-8', extra='ignore')

    APP_NAME: str = "Health Camp Operations Console"; APP_VERSION: str = "1.4.0"
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

    # Calendar-day arithmetic happens in this zone; tz-aware timestamps are converted into it.
    LOCAL_TIMEZONE: str = "Asia/Kolkata"

    CAMPS_COLLECTION: str = "healthCamps"; BOOKINGS_COLLECTION: str = "testEntries"
    CAMP_CODE_PREFIX: str = "MSHC"

    CAMP_REQUIRED_FIELDS: List[str] = ["date", "clinicCode", "address", "district", "state", "pinCode", "mobileNo"]
    CAMP_STAFF_FIELDS: List[str] = ["nurseName", "teamLeader", "dcName", "agentName", "roName", "somName"]
    CAMP_FINANCIAL_FIELDS: List[str] = [
        "unitsSold", "revenue", "amountPaidToFinance", "marketingExpense", "operationalExpense",
        "partnerAdjustedCount", "partnerAdjustmentAmount", "transactionId",
    ]
    CAMP_COMPLETION_FIELDS: List[str] = ["unitsSold", "revenue", "marketingExpense", "operationalExpense"]
    CAMP_VENDOR_FIELDS: List[str] = ["vendorName", "phleboName", "phleboMobileNo"]
    CAMP_TEST_COUNT_FIELDS: List[str] = ["totalConversions", "totalSales"]

    BOOKING_REQUIRED_FIELDS: List[str] = ["name", "mobileNo", "age", "gender", "address"]
    BOOKING_PATIENT_FIELDS: List[str] = [
        "name", "mobileNo", "age", "gender", "district", "state", "pincode", "city", "address",
        "hasPartner", "partnerName", "partnerReferenceId",
    ]
    BOOKING_PAYMENT_FIELDS: List[str] = ["paymentMode", "paymentReference", "paymentStatus"]

    TEST_CATALOG: Dict[str, TestCatalogEntry] = {
        "CBC": TestCatalogEntry(code="CBC", price=500),
        "Lipid Profile": TestCatalogEntry(code="LIP", price=800),
        "Blood Sugar": TestCatalogEntry(code="BST", price=300),
        "HbA1c": TestCatalogEntry(code="HBA", price=400),
        "Thyroid Profile": TestCatalogEntry(code="THY", price=600),
    }
    VENDORS: List[VendorOption] = [
        VendorOption(label="Red cliffe Labs", value="RED_CLIFF"),
        VendorOption(label="Healthians", value="HEALTHIANS"),
        VendorOption(label="Tata1mg", value="TATA1MG"),
        VendorOption(label="Goraksh Diagnostic", value="GORAKSH_DIAGNOSTIC"),
    ]
    PARTNER_PRICES: Dict[str, float] = {"HUMANA": 500, "M-AFFINITY": 500, "PAHAL": 150}
    # Partners whose adjusted count is added to unitsSold in performance figures (display only).
    UNITS_ADJUSTED_PARTNERS: List[str] = ["HUMANA"]

    KNOWN_DATE_FIELDS: List[str] = ["date", "lastModified", "reportStatusUpdatedAt"]
    DISPLAY_DATE_FORMAT: str = "%d %b %Y"
    CURRENCY_SYMBOL: str = "₹"
    EXPORT_ROLES: List[str] = ["superadmin"]

    WORKFLOW: WorkflowConfig = WorkflowConfig()

    @computed_field
    @property
    def VENDOR_CODES(self) -> List[str]: return [v.value for v in self.VENDORS]

try:
    settings = Settings()
    settings_logger.info(f"Console settings loaded successfully. App: {settings.APP_NAME} v{settings.APP_VERSION}")
except Exception as e:
    settings_logger.critical(f"FATAL: Could not initialize Pydantic settings. Error: {e}", exc_info=True)
    raise
