#!/usr/bin/env python3
"""
Utility script to reset a user's password or create the first admin.
Run from the repository root:
    python manage_users.py
"""
from allevapp.database import SessionLocal, engine
from allevapp.errors import ConflictError
from allevapp.models import Base, User
from allevapp.services import auth
from allevapp.utils.security import generate_password


def list_users():
    """List all users in the database"""
    db = SessionLocal()
    try:
        users = db.query(User).order_by(User.id).all()
        if not users:
            print("\nNo users found in database.")
            return []

        print("\n=== Existing Users ===")
        for user in users:
            print(f"  ID: {user.id}, Username: {user.username}, Name: {user.full_name}, Role: {user.role}, Active: {user.active}")
        return users
    finally:
        db.close()


def reset_password(username: str, new_password: str) -> bool:
    """Reset password for an existing user and reactivate the account"""
    db = SessionLocal()
    try:
        user = auth.get_user_by_username(db, username)
        if not user:
            print(f"\nError: User '{username}' not found.")
            return False

        user.active = True
        auth.reset_password(db, user, new_password)
        print(f"\nSuccess! Password reset for user: {user.username}")
        return True
    finally:
        db.close()


def create_admin(username: str, password: str, full_name: str = "Admin", email: str = None) -> bool:
    db = SessionLocal()
    try:
        auth.create_user(db, full_name=full_name, username=username, password=password, role="admin", email=email)
        print(f"\nSuccess! Created admin user: {username}")
        return True
    except ConflictError as e:
        print(f"\n{e.message}. Use the reset option instead.")
        return False
    finally:
        db.close()


def main():
    Base.metadata.create_all(bind=engine)
    print("\n=== AllevApp User Management ===")

    users = list_users()

    print("\nOptions:")
    print("  1. Reset password for existing user")
    print("  2. Create new admin user")
    print("  3. Exit")

    choice = input("\nEnter choice (1/2/3): ").strip()

    if choice == "1":
        if not users:
            print("No users to reset. Create a new admin user instead.")
            choice = "2"
        else:
            username = input("Enter username: ").strip()
            new_password = input("Enter new password (blank to generate): ").strip()
            if not new_password:
                new_password = generate_password()
                print(f"Generated password: {new_password}")
            if username:
                reset_password(username, new_password)
            else:
                print("Username is required.")

    if choice == "2":
        username = input("Enter admin username: ").strip()
        password = input("Enter password: ").strip()
        full_name = input("Enter full name (default: Admin): ").strip() or "Admin"
        email = input("Enter e-mail (optional): ").strip() or None
        if username and password:
            create_admin(username, password, full_name, email)
        else:
            print("Username and password are required.")

    if choice == "3":
        print("Goodbye!")


if __name__ == "__main__":
    main()
