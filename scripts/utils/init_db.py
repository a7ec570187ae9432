"""
Script para inicializar la base de datos SQLite del bot.
Crea el schema y, si existe, carga el FAQ de seed.
"""

import sys
from pathlib import Path

# Agregar raíz del proyecto al path para imports
project_root = Path(__file__).resolve().parent.parent.parent
sys.path.insert(0, str(project_root))

from agent.db_service import DBService
from api.config import get_settings
from rag.ingest.load_faq import load_faq, read_faq_file


def init_database(recreate: bool = False):
    """Inicializa la base de datos con schema y FAQ de seed"""

    db_path = get_settings().db_full_path
    seed_path = project_root / "database" / "seeds" / "faq.json"

    if db_path.exists():
        if not recreate:
            print(f"⚠️  La base de datos ya existe en {db_path} (usar --recreate para borrarla)")
            return
        db_path.unlink()

    print(f"📦 Creando base de datos en {db_path}")
    db = DBService(db_path)
    db.init_schema()

    if seed_path.exists():
        print("🌱 Cargando FAQ de seed...")
        count = load_faq(db, read_faq_file(seed_path))
        print(f"   - knowledge_base: {count} registros")

    print(f"\n🎉 Inicialización completada. DB: {db_path}")


if __name__ == "__main__":
    init_database(recreate="--recreate" in sys.argv)
