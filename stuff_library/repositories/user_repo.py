from stuff_library.models.user import User
from stuff_library.extensions import db


class UserRepo:
    @staticmethod
    def get_by_id(user_id: int):
        return db.session.get(User, user_id)

    @staticmethod
    def get_by_email(email: str):
        return User.query.filter_by(email=email).first()

    @staticmethod
    def create(user: User):
        db.session.add(user)
        db.session.commit()
        return user
