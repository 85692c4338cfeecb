"""Group companies: letterhead data and numbering prefixes."""
from typing import Dict, Any, Optional

SHARED_ADDRESS = "Via Trento 3, 25025 Manerbio (BS)"
SHARED_PHONE = "+39 030 9938433"
SHARED_FOOTER = "Società soggetta a direzione e coordinamento di Duerre S.p.A."
PAYMENT_TERMS = "Bonifico Bancario a 60 giorni data fattura fine mese"

DEFAULT_PREFIX = "PR"

COMPANY_TEMPLATES: Dict[str, Dict[str, Any]] = {
    "Zoogamma Spa": {
        "letterhead": "ZOOGAMMA SPA",
        "prefix": "ZG",
        "email": "ordini@zoogamma.it",
        "color": "#E31E24",
        "vat": "00633870981",
    },
    "So. Agr. Zooagri Srl": {
        "letterhead": "SO. AGR. ZOOAGRI SRL",
        "prefix": "ZR",
        "email": "ordini@zooagri.it",
        "color": "#1E3A8A",
        "vat": "02309000980",
    },
    "Soc. Agr. Zooallevamenti Srl": {
        "letterhead": "SOC. AGR. ZOOALLEVAMENTI SRL",
        "prefix": "ZL",
        "email": "ordini@zooallevamenti.it",
        "color": "#059669",
        "vat": "02309010989",
    },
}

COMPANIES = tuple(COMPANY_TEMPLATES.keys())


def is_known_company(company: Optional[str]) -> bool:
    return company in COMPANY_TEMPLATES


def company_prefix(company: Optional[str]) -> str:
    template = COMPANY_TEMPLATES.get(company or "")
    return template["prefix"] if template else DEFAULT_PREFIX


def get_template(company: Optional[str]) -> Dict[str, Any]:
    """Letterhead for a company; unknown companies get a neutral letterhead with their own name"""
    template = COMPANY_TEMPLATES.get(company or "")
    if template is None:
        template = {
            "letterhead": (company or "AllevApp").upper(),
            "prefix": DEFAULT_PREFIX,
            "email": "",
            "color": "#374151",
            "vat": "",
        }
    return {
        **template,
        "name": company,
        "address": SHARED_ADDRESS,
        "phone": SHARED_PHONE,
        "footer": SHARED_FOOTER,
        "payment_terms": PAYMENT_TERMS,
    }
