from sqlalchemy import inspect

from models import db
from models.user import Role
from security.rbac import ADMIN, MEMBER

DEFAULT_ROLES = [MEMBER, ADMIN]

def seed_roles() -> int:
    # nothing to seed before the first migration has run
    if not inspect(db.engine).has_table(Role.__tablename__):
        return 0
    existing = {r.name for r in Role.query.all()}
    missing = [name for name in DEFAULT_ROLES if name not in existing]
    for name in missing:
        db.session.add(Role(name=name))
    db.session.commit()
    return len(missing)
