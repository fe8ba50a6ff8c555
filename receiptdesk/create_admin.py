# python -m receiptdesk.create_admin <username> <email> <password> [name]
import sys

from sqlmodel import Session, or_, select

from receiptdesk.database import engine
from receiptdesk.models.admin import Admin
from receiptdesk.utils.hash import hash_password


def create_admin(session: Session, username: str, email: str, password: str, name: str = None) -> Admin:
    existing = session.exec(
        select(Admin).where(or_(Admin.username == username, Admin.email == email))
    ).first()
    if existing:
        existing.password = hash_password(password)
        existing.is_active = True
        session.add(existing)
        session.commit()
        session.refresh(existing)
        return existing

    admin = Admin(
        username=username,
        email=email,
        name=name or username,
        password=hash_password(password),
    )
    session.add(admin)
    session.commit()
    session.refresh(admin)
    return admin


def main(argv):
    if len(argv) < 3:
        print("usage: python -m receiptdesk.create_admin <username> <email> <password> [name]")
        return 1

    with Session(engine) as session:
        admin = create_admin(session, *argv[:4])
    print(f"✅ Admin '{admin.username}' ready (id={admin.id})")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
