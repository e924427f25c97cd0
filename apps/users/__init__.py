"""Users app package.

Defines the custom user model with platform roles. Use
``apps.users.models.CustomUser`` as the AUTH_USER_MODEL throughout
the project; ``CustomUser.as_actor()`` turns a request user into the
actor the booking guards reason about.
"""
