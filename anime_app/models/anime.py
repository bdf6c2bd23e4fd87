from . import db, utcnow


class Anime(db.Model):
    """Local cache row for one Annict work."""

    __tablename__ = "animes"

    id = db.Column(db.Integer, primary_key=True)
    annict_id = db.Column(db.BigInteger, unique=True, nullable=False)
    title = db.Column(db.String(255), nullable=False)
    # 0 means the provider had no season year
    year = db.Column(db.Integer, nullable=False, default=0)
    image_url = db.Column(db.String(1024), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    # Relationships
    reviews = db.relationship("Review", back_populates="anime")

    def to_dict(self):
        return {
            "id": self.id,
            "annict_id": self.annict_id,
            "title": self.title,
            "year": self.year,
            "image_url": self.image_url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Anime {self.title} ({self.year})>"
