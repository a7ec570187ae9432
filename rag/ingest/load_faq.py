"""
Load FAQ - Carga pares pregunta/respuesta en la base de conocimiento.

Este módulo:
1. Lee un JSON con una lista de {question, answer, keywords}
2. Valida cada entrada con Pydantic
3. Inserta las entradas en la tabla knowledge_base (opcionalmente reemplazando)
"""

import json
import logging
from pathlib import Path
from typing import List, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from agent.db_service import DBService

logger = logging.getLogger(__name__)


class FAQEntry(BaseModel):
    question: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)
    keywords: Union[str, List[str]] = ""

    @field_validator("keywords")
    @classmethod
    def _join_keywords(cls, value):
        if isinstance(value, list):
            return " ".join(k.strip() for k in value if k.strip())
        return value.strip()


_ENTRIES = TypeAdapter(List[FAQEntry])


def read_faq_file(path: Path) -> List[FAQEntry]:
    with open(path, "r", encoding="utf-8") as f:
        return _ENTRIES.validate_python(json.load(f))


def load_faq(db: DBService, entries: List[FAQEntry], replace: bool = False) -> int:
    """
    Inserta las entradas en la base de conocimiento.

    Returns:
        Cantidad de entradas insertadas
    """
    db.init_schema()
    if replace:
        removed = db.clear_knowledge_base()
        logger.info(f"{removed} entradas previas eliminadas")

    for entry in entries:
        db.add_knowledge_entry(entry.question, entry.answer, entry.keywords)

    logger.info(f"{len(entries)} entradas cargadas en {db.db_path}")
    return len(entries)


if __name__ == "__main__":
    """Cargar FAQ: python -m rag.ingest.load_faq [archivo.json] [--replace]"""
    import sys

    from api.config import get_settings

    logging.basicConfig(level=logging.INFO, format="%(levelname)s - %(message)s")

    args = [a for a in sys.argv[1:] if not a.startswith("--")]
    project_root = Path(__file__).resolve().parent.parent.parent
    faq_path = Path(args[0]) if args else project_root / "database" / "seeds" / "faq.json"

    count = load_faq(
        DBService(get_settings().db_full_path),
        read_faq_file(faq_path),
        replace="--replace" in sys.argv,
    )
    print(f"✅ {count} entradas cargadas desde {faq_path}")
