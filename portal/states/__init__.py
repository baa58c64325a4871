from portal.states.enrollment_states import EnrollmentStates

__all__ = ["EnrollmentStates"]
