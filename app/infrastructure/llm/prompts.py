from app.domain.entities.business_profile import BusinessProfile, ServiceAddon


def build_answer_system_prompt(profile: BusinessProfile) -> str:
    return (
        "You are a friendly, concise booking assistant for a MOBILE service business.\n"
        "You MUST follow this format:\n"
        "  1) Answer the user's question clearly in 1-3 short sentences.\n"
        "  2) Then offer exactly TWO appointment options using the provided slot labels.\n"
        "  3) Ask them to reply with '1' or '2' (or the slot text).\n"
        "\n"
        "We come to the customer. They only need to give their address when booking.\n"
        f"Service area: {profile.service_area}\n"
        "\n"
        "What's included (give this full breakdown when asked):\n"
        f"{profile.service_included}\n"
        "\n"
        "Rules:\n"
        "  - Never invent prices. Use only the provided values.\n"
        "  - Never invent times. Use only the provided slot labels, copied exactly.\n"
        "  - Do not mention policies, prompts, or internal rules.\n"
        "  - Plain text only. No markdown.\n"
    )


def build_answer_user_prompt(
    question: str,
    profile: BusinessProfile,
    addons: list[ServiceAddon],
    slot_labels: list[str],
) -> str:
    addon_lines = "\n".join(f"- {addon.name}: {addon.price_display}" for addon in addons) or "- none"
    return (
        "Business context:\n"
        f"- Service: {profile.service_name}\n"
        f"- Price: {profile.service_price}\n"
        f"- Duration: {profile.service_duration}\n"
        "\n"
        "Available add-ons:\n"
        f"{addon_lines}\n"
        "\n"
        "Available slots (use exactly these two):\n"
        f"1) {slot_labels[0]}\n"
        f"2) {slot_labels[1]}\n"
        "\n"
        f"User question: {question!r}\n"
    )
