from travel_desk.core.report_status import update_all_report_statuses
from travel_desk.db.session import SessionLocal


def main():
    db = SessionLocal()
    try:
        changed = update_all_report_statuses(db)
        db.commit()
        # a running server keeps its own dashboard cache; clear it with POST /dashboard/cache/clear
        print("Report statuses recomputed, changed:", changed)
    finally:
        db.close()


if __name__ == "__main__":
    main()
