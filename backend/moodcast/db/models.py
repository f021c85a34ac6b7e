from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from .base import Base


class Track(Base):
    __tablename__ = "tracks"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    spotify_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    artist: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    album: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    release_date: Mapped[date | None] = mapped_column(Date)
    popularity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    preview_url: Mapped[str | None] = mapped_column(Text)
    image_url: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    features: Mapped[TrackFeature | None] = relationship(back_populates="track", uselist=False, lazy="selectin")

    __table_args__ = (Index("ix_tracks_popularity_id", "popularity", "id"),)


class TrackFeature(Base):
    __tablename__ = "track_features"

    track_id: Mapped[str] = mapped_column(String(64), ForeignKey("tracks.id", ondelete="CASCADE"), primary_key=True)
    danceability: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    energy: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    key: Mapped[int] = mapped_column(Integer, nullable=False, default=-1)
    loudness: Mapped[float] = mapped_column(Float, nullable=False, default=-60.0)
    mode: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    speechiness: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    acousticness: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    instrumentalness: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    liveness: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    valence: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    tempo: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    duration_ms: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    time_signature: Mapped[int] = mapped_column(Integer, nullable=False, default=4)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    track: Mapped[Track] = relationship(back_populates="features")


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    spotify_id: Mapped[str | None] = mapped_column(String(64))
    min_tempo: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    max_tempo: Mapped[float] = mapped_column(Float, nullable=False, default=250.0)
    favorite_genres: Mapped[list[str]] = mapped_column(JSONB, default=list)
    disliked_genres: Mapped[list[str]] = mapped_column(JSONB, default=list)
    preferred_moods: Mapped[list[str]] = mapped_column(JSONB, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Recommendation(Base):
    __tablename__ = "recommendations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    mood: Mapped[str] = mapped_column(String(32), nullable=False)
    weather: Mapped[str] = mapped_column(String(32), nullable=False)
    time_of_day: Mapped[str] = mapped_column(String(32), nullable=False)
    track_ids: Mapped[list[str]] = mapped_column(JSONB, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "mood", "weather", "time_of_day", name="uq_recommendations_context"),
        Index("ix_recommendations_expires_at", "expires_at"),
    )


class TrackInteraction(Base):
    __tablename__ = "user_track_interactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    track_id: Mapped[str] = mapped_column(String(64), ForeignKey("tracks.id", ondelete="CASCADE"), nullable=False)
    liked: Mapped[bool] = mapped_column(Boolean, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("ix_user_track_interactions_user_created", "user_id", "created_at"),)
