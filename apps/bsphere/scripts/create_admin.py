#!/usr/bin/env python3
"""
B-Sphere Admin Account Setup Script

Creates the first admin account so the dashboard can be used before anyone
has signed up through /api/auth/admin-signup.

Usage (interactive):
    python apps/bsphere/scripts/create_admin.py

Usage (non-interactive):
    python apps/bsphere/scripts/create_admin.py --email you@example.com --password secret1 \
        --first-name Juan --last-name Dela Cruz --phone 09171234567 --birthdate 1990-01-31
"""
import os
import sys
import getpass
import argparse

# Project root (three levels up) so apps.bsphere imports resolve
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))))

from dotenv import load_dotenv
load_dotenv()


def _prompt(label: str, current: str = None, required: bool = True) -> str:
    if current:
        return current.strip()
    while True:
        try:
            value = input(f"{label}: ").strip()
        except EOFError:
            print(f"{label} is required. Use command-line flags for non-interactive mode.")
            sys.exit(1)
        if value or not required:
            return value
        print(f"  {label} is required.")


def main():
    parser = argparse.ArgumentParser(description='Create a B-Sphere admin account')
    parser.add_argument('--email', '-e', help='Admin email address')
    parser.add_argument('--password', '-p', help='Admin password (min 6 chars)')
    parser.add_argument('--first-name', help='First name')
    parser.add_argument('--middle-name', help='Middle name', default='')
    parser.add_argument('--last-name', help='Last name')
    parser.add_argument('--phone', help='Mobile number (09XXXXXXXXX)')
    parser.add_argument('--birthdate', help='Birthdate (YYYY-MM-DD)')
    parser.add_argument('--role', default='admin', help='Role (default: admin)')
    args = parser.parse_args()

    print("\n" + "=" * 50)
    print("  B-Sphere Admin Account Setup")
    print("=" * 50 + "\n")

    from apps.bsphere.app import create_app
    from apps.bsphere import db
    from apps.bsphere.models.admin import AdminAccount, normalize_role
    from apps.bsphere.utils.auth import hash_password
    from apps.bsphere.utils.validators import (
        ValidationError,
        sanitize_string,
        validate_email,
        validate_minimum_age,
        validate_password,
        validate_phone,
    )

    app = create_app()

    with app.app_context():
        try:
            email = validate_email(_prompt("Email", args.email)).lower()
            if AdminAccount.query.filter_by(email=email).first():
                print("  This email is already registered.")
                sys.exit(1)

            password = args.password
            if not password:
                password = getpass.getpass("Password: ")
                if password != getpass.getpass("Confirm password: "):
                    print("  Passwords do not match.")
                    sys.exit(1)
            validate_password(password)

            first_name = sanitize_string(_prompt("First name", args.first_name), upper=True)
            middle_name = sanitize_string(args.middle_name, upper=True)
            last_name = sanitize_string(_prompt("Last name", args.last_name), upper=True)
            phone = validate_phone(_prompt("Mobile number", args.phone))
            birthdate = validate_minimum_age(_prompt("Birthdate (YYYY-MM-DD)", args.birthdate), 18, 'Admin')
        except ValidationError as e:
            print(f"  {e}")
            sys.exit(1)

        admin = AdminAccount(
            email=email,
            password_hash=hash_password(password),
            first_name=first_name,
            middle_name=middle_name,
            last_name=last_name,
            phone=phone,
            birthdate=birthdate.isoformat(),
            role=normalize_role(args.role) or 'admin',
            is_active=True,
            email_verified=True,
        )
        db.session.add(admin)
        db.session.commit()

        print(f"\nAdmin account created: {admin.email} (id {admin.id}, role {admin.role})\n")


if __name__ == '__main__':
    main()
