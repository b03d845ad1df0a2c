"""ORM models for Mortimer."""

from sqlalchemy import Column, Integer, BigInteger, Text, Boolean, ForeignKey, TIMESTAMP
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class ShellCommand(Base):
    """Shell command record."""
    __tablename__ = 'shell_commands'
    
    id = Column(Integer, primary_key=True)
    command = Column(Text, nullable=False)
    directory = Column(Text, nullable=False)
    ts = Column(BigInteger, nullable=False, index=True)  # microseconds since the epoch
    redacted = Column(Boolean, nullable=False, default=False)
    original = Column(Text)
    exit_code = Column(Integer)
    created_at = Column(TIMESTAMP, server_default=func.now())


class Token(Base):
    """Secret extracted from a command, linked back to it."""
    __tablename__ = 'tokens'
    
    id = Column(Integer, primary_key=True)
    command_id = Column(Integer, ForeignKey('shell_commands.id', ondelete='CASCADE'), nullable=False, index=True)
    token_type = Column(Text, nullable=False)
    placeholder = Column(Text, nullable=False)
    original_value = Column(Text, nullable=False)
    created_at = Column(TIMESTAMP, server_default=func.now())
