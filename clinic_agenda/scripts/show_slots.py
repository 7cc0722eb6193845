# clinic_agenda/scripts/show_slots.py
"""
Uso: python -m clinic_agenda.scripts.show_slots <tenant_id> [professional_id] [days_ahead]
"""
import sys

from clinic_agenda.database import SessionLocal, init_db
from clinic_agenda.schemas import SlotSearchCriteria
from clinic_agenda.services.slot_finder import search_slots


def show_slots(tenant_id: int, professional_id=None, days_ahead=None):
    print(f"\n=== Slots tenant={tenant_id} prof={professional_id or 'todos'} días={days_ahead or 'default'} ===")
    db = SessionLocal()
    try:
        criteria = SlotSearchCriteria(professional_id=professional_id, days_ahead=days_ahead)
        slots = search_slots(db, tenant_id, criteria)
    finally:
        db.close()
    if not slots:
        print("No hay slots disponibles.")
        return
    for s in slots:
        print(f" - {s.date} {s.startTime}-{s.endTime}  {s.professionalName} (#{s.professionalId})")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__.strip())
        sys.exit(1)
    init_db()
    args = [int(a) for a in sys.argv[1:4]]
    show_slots(*args)
