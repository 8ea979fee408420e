"""Revoked JWTs (logout)."""
from apps.bsphere import db
from apps.bsphere.utils.time import utc_now


class TokenBlacklist(db.Model):
    __tablename__ = 'token_blacklist'

    id = db.Column(db.Integer, primary_key=True)
    jti = db.Column(db.String(64), unique=True, nullable=False, index=True)
    token_type = db.Column(db.String(10), nullable=False, default='access')
    admin_id = db.Column(db.String(50), nullable=True)
    expires_at = db.Column(db.DateTime, nullable=False)
    revoked_at = db.Column(db.DateTime, default=utc_now, nullable=False)

    def __repr__(self):
        return f'<TokenBlacklist {self.jti}>'

    @classmethod
    def add_token_to_blacklist(cls, jti, token_type, admin_id, expires_at):
        if cls.query.filter_by(jti=jti).first():
            return
        db.session.add(cls(jti=jti, token_type=token_type, admin_id=admin_id, expires_at=expires_at))
        db.session.commit()

    @classmethod
    def is_token_revoked(cls, jti) -> bool:
        return db.session.query(cls.id).filter_by(jti=jti).first() is not None

    @classmethod
    def purge_expired(cls) -> int:
        removed = cls.query.filter(cls.expires_at < utc_now()).delete()
        db.session.commit()
        return removed
