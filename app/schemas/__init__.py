from app.schemas.registration import (
    SessionResponse, SendOTPRequest, VerifyOTPRequest, OTPStatusResponse,
    SkillRequest, SkillsResponse, RegistrationForm, RegistrationOut,
    RegistrationResponse, MessageResponse
)
