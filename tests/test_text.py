from stackstate.stacks.text import replace_stack_tokens


def test_tokens_are_replaced_with_lookup_values():
    stacks = {3: 7, 12: 0}
    text = r"Poison x\stack[3], shield \stack[12], none \stack[4]"

    result = replace_stack_tokens(text, lambda status_id: stacks.get(status_id, 0))

    assert result == "Poison x7, shield 0, none 0"


def test_text_without_tokens_is_unchanged():
    assert replace_stack_tokens("plain", lambda status_id: 1) == "plain"
    assert replace_stack_tokens("", lambda status_id: 1) == ""
    assert replace_stack_tokens(r"\stack[x]", lambda status_id: 1) == r"\stack[x]"
