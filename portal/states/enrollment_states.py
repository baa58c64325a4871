from aiogram.fsm.state import State, StatesGroup


class EnrollmentStates(StatesGroup):
    """Which free-text answer the enrollment wizard is waiting for."""
    athlete_name = State()   # Step 1
    athlete_dob  = State()   # Step 1: YYYY-MM-DD or DD.MM.YYYY
    parent_name  = State()   # Step 2
    email        = State()   # Step 2
    phone        = State()   # Step 2
    signature    = State()   # Step 3: must match the parent name
    card_number  = State()   # Step 4
    expiry       = State()   # Step 4: MM/YY
    cvc          = State()   # Step 4
