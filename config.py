"""Settings read from the environment (and a .env file when present)."""

import logging
import os
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, field_validator

from exceptions import ConfigurationError
from invoice_generator import RenderConfig
from models import BankDetails, Party

ENV_PREFIX = "GST_"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

DEFAULT_TERMS = (
    "1. Payment due within 30 days. 2. Goods once sold will not be taken back. "
    "3. Interest @18% p.a. will be charged on delayed payments."
)


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    # seller / company
    seller_name: str = "Friends Group Company Pvt. Ltd."
    seller_address: str = "Wiman Nagar, Pune, Maharashtra"
    seller_gstin: Optional[str] = "27ABCDE1234F1Z5"
    seller_state: str = "Maharashtra"
    seller_state_code: str = "27"
    seller_phone: Optional[str] = None
    seller_email: Optional[str] = None

    # bank
    bank_account_holder: Optional[str] = None
    bank_name: Optional[str] = None
    bank_account_number: Optional[str] = None
    bank_branch: Optional[str] = None
    bank_ifsc: Optional[str] = None

    default_terms: str = DEFAULT_TERMS
    hsn_csv: str = "Data/hsn_codes.csv"
    font_path: Optional[str] = None
    font_bold_path: Optional[str] = None
    watermark: Optional[str] = "ORIGINAL"
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def known_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log level must be one of {', '.join(LOG_LEVELS)}")
        return level

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, dotenv: bool = True) -> "Settings":
        """
        Build settings from GST_* variables, e.g. GST_SELLER_NAME or GST_FONT_PATH.
        Unset variables keep their defaults; an empty GST_WATERMARK turns it off.
        """
        if environ is None:
            if dotenv:
                load_dotenv()
            environ = os.environ
        values = {}
        for name in cls.model_fields:
            key = ENV_PREFIX + name.upper()
            if key in environ:
                values[name] = environ[key]
        if values.get("watermark") == "":
            values["watermark"] = None
        try:
            return cls(**values)
        except PydanticValidationError as exc:
            raise ConfigurationError(f"Invalid settings: {exc}") from exc

    def seller(self) -> Party:
        return Party(
            name=self.seller_name,
            address=self.seller_address.replace("\\n", "\n"),
            gstin=self.seller_gstin,
            state=self.seller_state,
            state_code=self.seller_state_code,
            phone=self.seller_phone,
            email=self.seller_email,
        )

    def bank_details(self) -> Optional[BankDetails]:
        if not (self.bank_name and self.bank_account_number):
            return None
        return BankDetails(
            account_holder_name=self.bank_account_holder or self.seller_name,
            bank_name=self.bank_name,
            account_number=self.bank_account_number,
            branch=self.bank_branch,
            ifsc_code=self.bank_ifsc,
        )

    def render_config(self) -> RenderConfig:
        return RenderConfig(
            font_path=self.font_path,
            bold_font_path=self.font_bold_path,
            watermark=self.watermark,
        )


def configure_logging(level: str = "INFO") -> None:
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ConfigurationError(f"Unknown log level: {level}")
    logging.basicConfig(level=numeric, format=LOG_FORMAT)
