from typing import Any, Dict

from dutystack.web.db import db


class BaseModel(db.Model):
    __abstract__ = True

    @classmethod
    def create(cls, commit: bool = True, **kwargs):
        instance = cls(**kwargs)
        return instance.save(commit=commit)

    @classmethod
    def find_by(cls, **kwargs):
        return cls.query.filter_by(**kwargs).first()

    @classmethod
    def where(cls, **kwargs):
        return cls.query.filter_by(**kwargs).all()

    def save(self, commit: bool = True):
        db.session.add(self)
        if commit:
            db.session.commit()
        return self

    def update(self, commit: bool = True, **kwargs):
        for key, value in kwargs.items():
            setattr(self, key, value)
        return self.save(commit=commit)

    def as_dict(self) -> Dict[str, Any]:
        raise NotImplementedError
