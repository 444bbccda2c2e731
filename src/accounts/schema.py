from ninja import ModelSchema

from accounts.models import TurnstileUser


class MinimalTurnstileUserSchema(ModelSchema):
    display_name: str

    class Meta:
        model = TurnstileUser
        fields = ["id", "preferred_name", "first_name", "last_name", "email"]
