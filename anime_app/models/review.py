from . import db, utcnow


class Review(db.Model):
    __tablename__ = "reviews"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    anime_id = db.Column(db.Integer, db.ForeignKey("animes.id"), nullable=False, index=True)
    score = db.Column(db.Integer, nullable=False)  # 0 - 100
    comment = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    # Relationships
    anime = db.relationship("Anime", back_populates="reviews")
    user = db.relationship("User", back_populates="reviews")

    __table_args__ = (
        db.UniqueConstraint("user_id", "anime_id", name="uq_review_user_anime"),
        db.CheckConstraint("score >= 0 AND score <= 100", name="ck_review_score_range"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "anime_id": self.anime_id,
            "score": self.score,
            "comment": self.comment,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Review anime_id={self.anime_id} user_id={self.user_id} score={self.score}>"
