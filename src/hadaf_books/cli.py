"""
Hadaf Books - Console Menu

A small interactive front end over the same engine the API uses. Handy on the
office machine when the web dashboard is not running: see which recurring
payments are due, chase pending installments and settle them.
"""

import os
import sys

from .config import configure_logging, load_config
from .dates import today_iso
from .engine import BooksEngine
from .errors import BooksError


def print_header(engine):
    """Prints a short status block above the menu."""
    os.system('cls' if os.name == 'nt' else 'clear')
    due = engine.reports.due_templates(today_iso())
    pending = engine.reports.follow_ups()
    print("=" * 60)
    print("      HADAF BOOKS - RECURRING PAYMENTS")
    print("=" * 60)
    print(f"Date: {today_iso()}      Due templates: {len(due)}      Pending: {len(pending)}")
    print("-" * 60)


def _print_templates(templates):
    for t in templates:
        state = "" if t["is_active"] else "  (inactive)"
        print(f"  [{t['id']}] {t['next_due_date']}  {t['name']:<20} {t['amount']:>10,.2f} {t['currency']}  {t['frequency']}{state}")


def _print_entries(entries):
    for e in entries:
        print(f"  [{e['id']}] {e['date']}  {e['name']:<20} {e['amount']:>10,.2f} {e['currency']}  {e['type']:<3} {e['category_name']}")


def handle_view_due(engine):
    print("\n--- Due Recurring Payments ---")
    due = engine.reports.due_templates(today_iso())
    if not due:
        print("Nothing is due.")
    _print_templates(due)
    input("\nPress Enter to return to the menu...")


def handle_view_follow_ups(engine):
    print("\n--- Pending Installments ---")
    entries = engine.reports.follow_ups()
    if not entries:
        print("No pending installments.")
    _print_entries(entries)
    input("\nPress Enter to return to the menu...")


def handle_execute(engine):
    """Create the pending installment for a due template."""
    print("\n--- Execute Recurring Payment ---")
    _print_templates(engine.templates.list())
    try:
        template_id = int(input("Template id: "))
        result = engine.advancer.execute(template_id)
        if result["created"]:
            print(f"Pending installment #{result['transaction']['id']} created for {result['transaction']['date']}.")
        else:
            print(f"Installment #{result['transaction']['id']} is already waiting.")
    except ValueError:
        print("Invalid input. Please enter a number.")
    except BooksError as e:
        print(f"Error: {e.message}")
    input("\nPress Enter to return to the menu...")


def handle_close_installment(engine):
    """Mark a pending installment done or cancelled."""
    print("\n--- Close Installment ---")
    entries = engine.reports.follow_ups()
    if not entries:
        print("No pending installments.")
        input("\nPress Enter to return to the menu...")
        return
    _print_entries(entries)

    try:
        entry_id = int(input("Transaction id: "))
        choice = input("[1] Paid  [2] Cancelled > ")
        status = {"1": "done", "2": "cancelled"}.get(choice)
        if status is None:
            print("Invalid selection.")
        else:
            entry = engine.close_installment(entry_id, status)
            print(f"Transaction #{entry['id']} marked {entry['status']}.")
            if entry["recurring_id"]:
                template = engine.templates.get_by_id(entry["recurring_id"])
                if template:
                    print(f"Next due date for '{template['name']}': {template['next_due_date']}")
    except ValueError:
        print("Invalid input. Please enter a number.")
    except BooksError as e:
        print(f"Error: {e.message}")
    input("\nPress Enter to return to the menu...")


def run_main_menu(engine):
    while True:
        print_header(engine)
        print("\n--- MAIN MENU ---")
        print("1. View Due Recurring Payments")
        print("2. View Pending Installments")
        print("3. Execute a Recurring Payment")
        print("4. Close an Installment")
        print("5. Exit")

        choice = input("> ")

        if choice == '1':
            handle_view_due(engine)
        elif choice == '2':
            handle_view_follow_ups(engine)
        elif choice == '3':
            handle_execute(engine)
        elif choice == '4':
            handle_close_installment(engine)
        elif choice == '5':
            print("Goodbye!")
            break
        else:
            print("Invalid choice, please try again.")
            input("Press Enter to continue...")


def main():
    config = load_config()
    configure_logging("WARNING")
    try:
        engine = BooksEngine.from_config(config)
    except RuntimeError as e:
        print(f"FATAL: Could not open the database. Error: {e}")
        sys.exit(1)
    run_main_menu(engine)


if __name__ == "__main__":
    main()
