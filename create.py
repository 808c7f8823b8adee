# create.py - bootstrap a fresh database: tables, default categories, first admin
from getpass import getpass

from neigh import create_app
from neigh.extensions import db
from neigh.models.user import User
from neigh.services.task_service import seed_categories


def _prompt_password() -> str:
    while True:
        password = getpass("Password (min 8 chars): ")
        if len(password) < 8:
            print("Too short, try again.")
            continue
        if password != getpass("Repeat password: "):
            print("Passwords don't match, try again.")
            continue
        return password


def main():
    app = create_app()
    with app.app_context():
        db.create_all()
        added = seed_categories()
        print(f"Task categories ready ({added} new).")

        email = input("Admin email: ").strip().lower()
        existing = User.query.filter_by(email=email).first()
        if existing is not None:
            if existing.is_admin:
                print(f"{email} is already an admin.")
                return
            if input(f"{email} exists as {existing.role}; promote to admin? [y/N] ").strip().lower() == "y":
                existing.role = "admin"
                db.session.commit()
                print(f"{email} promoted to admin.")
            return

        name = input("Full name: ").strip() or email.split("@")[0]
        user = User(name=name, email=email, role="admin")
        user.set_password(_prompt_password())
        db.session.add(user)
        db.session.commit()
        print(f"Admin user {email} created.")


if __name__ == "__main__":
    main()
