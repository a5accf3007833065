"""Coarse keyword heuristic for guessing a question's legal category.

Used only when the caller did not supply a category. Categories are checked
in declaration order and the first one with any keyword present wins.
"""

from typing import Dict, Optional, Tuple

from intake.app.services.knowledge_base import LegalCategory

CATEGORY_KEYWORDS: Dict[LegalCategory, Tuple[str, ...]] = {
    LegalCategory.CIVIL: (
        "daños", "perjuicios", "responsabilidad civil", "indemnización",
        "accidente", "contrato",
    ),
    LegalCategory.PENAL: (
        "delito", "crimen", "robo", "fraude", "detención", "acusación",
        "antecedentes",
    ),
    LegalCategory.LABOR: (
        "despido", "salario", "contrato laboral", "horas", "vacaciones",
        "trabajador",
    ),
    LegalCategory.ADMINISTRATIVE: (
        "ayuntamiento", "administración", "recurso", "licencia", "permiso",
    ),
    LegalCategory.COMMERCIAL: (
        "empresa", "comercio", "negocio", "proveedor", "cliente", "factura",
    ),
    LegalCategory.FAMILY: (
        "divorcio", "custodia", "pensión", "herencia", "matrimonio", "hijos",
    ),
}


def detect_category(question_text: str) -> Optional[LegalCategory]:
    """Guess the category of a question, or None when no keyword list matches."""
    lowered = (question_text or "").lower()
    for category, keywords in CATEGORY_KEYWORDS.items():
        if any(keyword in lowered for keyword in keywords):
            return category
    return None
