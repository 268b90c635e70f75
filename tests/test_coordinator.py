from conftest import captioned, files, item_html

from gallery_form.core.settings import GalleryConfig
from gallery_form.models.events import FileUploaded, UploadError, UploadErrorCode, UploadProgress
from gallery_form.models.gallery import BlockReason, CoordinatorState
from gallery_form.services.dom import parse_fragment
from gallery_form.services.rich_text import TextAreaField, WordLimitBinding


def _upload(engine, coord, ids, captions=None):
    """Add one file per id and complete them all with server fragments."""
    picked = files(*[f"{i}.jpg" for i in ids])
    coord.add_files(picked)
    coord.confirm_upload()
    for f, image_id in zip(picked, ids):
        caption = (captions or {}).get(image_id, "")
        engine.emit(FileUploaded(f.id, item_html(image_id, caption)))
    return picked


def test_existing_items_are_adopted_on_construction(build):
    coord, page = build(captioned(3))
    assert coord.ordered_ids() == ["1", "2", "3"]
    assert coord.captions.ids() == ["1", "2", "3"]
    assert coord.images_description.is_shown
    assert coord.num_images_error.is_shown
    assert coord.submit_button.disabled
    # init cleared the placeholder in the progress list
    assert coord.files_list.children == []


def test_empty_gallery_starts_with_submit_disabled(build):
    coord, _ = build()
    assert coord.state is CoordinatorState.IDLE
    assert coord.submit_button.disabled
    assert not coord.images_description.is_shown


def test_duplicate_rendered_items_are_dropped(build):
    coord, _ = build([("1", "a"), ("2", "b"), ("1", "c")])
    assert coord.ordered_ids() == ["1", "2"]


def test_submission_gating_examples(build):
    coord, _ = build(captioned(14))
    assert coord.is_submittable() is False
    assert coord.attempt_submit().reason is BlockReason.IMAGE_COUNT

    coord, _ = build(captioned(14) + [("15", "")])
    assert coord.submit_button.disabled is False
    assert coord.is_submittable() is False
    decision = coord.attempt_submit()
    assert decision.allowed is False and decision.reason is BlockReason.CAPTIONS

    coord, _ = build(captioned(15))
    assert coord.is_submittable() is True
    assert coord.attempt_submit().allowed is True

    coord, _ = build(captioned(21))
    assert coord.is_submittable() is False
    assert coord.num_images_error.is_shown


def test_bounds_come_from_configuration(build):
    coord, _ = build(captioned(3), GalleryConfig(min_images=1, max_images=3))
    assert coord.is_submittable() is True
    assert not coord.num_images_error.is_shown


def test_submit_click_focuses_first_empty_caption(build):
    items = captioned(15)
    items[3] = ("4", "")
    items[9] = ("10", " ")
    coord, page = build(items)
    event = coord.submit_button.click()
    assert event.default_prevented
    first = coord.item("4").caption_field
    assert page.active_element is first
    assert first.parent.children[0].text == "Caption required"


def test_submit_click_passes_when_valid(build):
    coord, _ = build(captioned(16))
    assert coord.submit_button.click().default_prevented is False


def test_upload_lifecycle_inserts_items_and_settles(build, engine):
    coord, _ = build(captioned(13))
    picked = files("14.jpg", "15.jpg")
    coord.add_files(picked)
    assert coord.state is CoordinatorState.UPLOADING
    assert coord.outstanding == 2
    # the upload affordance is revealed until the user confirms
    assert coord.upload_container.is_shown
    assert engine.started == 0

    coord.upload_link.click()
    assert engine.started == 1
    assert not coord.upload_container.is_shown

    builds = coord.order.builds
    engine.emit(UploadProgress(picked[1].id, 50))
    engine.emit(FileUploaded(picked[1].id, item_html("15", "late")))
    assert coord.ordered_ids()[-1] == "15"
    assert coord.state is CoordinatorState.UPLOADING
    # no rebuild while uploads are still outstanding
    assert coord.order.builds == builds
    assert coord.submit_button.disabled

    engine.emit(FileUploaded(picked[0].id, item_html("14", "early")))
    assert coord.state is CoordinatorState.IDLE
    assert coord.order.builds == builds + 1
    assert coord.ordered_ids()[-2:] == ["15", "14"]
    assert coord.submit_button.disabled is False
    assert coord.attempt_submit().allowed


def test_submission_blocked_while_uploading(build, engine):
    coord, _ = build(captioned(15))
    assert coord.is_submittable()
    coord.add_files(files("16.jpg"))
    assert coord.is_submittable() is False
    assert coord.attempt_submit().reason is BlockReason.UPLOADING


def test_lenient_variant_allows_submit_during_uploads(build):
    coord, _ = build(captioned(15), GalleryConfig(block_submit_while_uploading=False))
    coord.add_files(files("16.jpg"))
    assert coord.is_submittable() is True


def test_failed_upload_still_settles(build, engine):
    coord, _ = build(captioned(2))
    a, b = files("a.jpg", "b.jpg")
    coord.add_files([a, b])
    engine.emit(FileUploaded(a.id, item_html("3")))
    engine.emit(UploadError(UploadErrorCode.HTTP_ERROR, "HTTP Error. 502", b))
    assert coord.state is CoordinatorState.IDLE
    assert coord.ordered_ids() == ["1", "2", "3"]
    assert coord.session.messages()[-1] == "b.jpg - Error uploading file."


def test_unparseable_response_marks_file_failed_and_settles(build, engine):
    coord, _ = build()
    (f,) = files("a.jpg")
    coord.add_files([f])
    engine.emit(FileUploaded(f.id, "<p>Internal error</p>"))
    assert coord.state is CoordinatorState.IDLE
    assert coord.item_count == 0
    assert coord.session.messages() == ["a.jpg - Error: unexpected upload response."]


def test_duplicate_upload_response_is_not_inserted_twice(build, engine):
    coord, _ = build(captioned(2))
    _upload(engine, coord, ["2", "3"])
    assert coord.ordered_ids() == ["1", "2", "3"]


def test_delete_is_optimistic_and_fires_request(build, transport):
    coord, page = build(captioned(16))
    link = coord.item("5").node.find("a", "image-delete")
    event = link.click()
    assert event.default_prevented
    # removed before any response could have arrived
    assert "5" not in coord.ordered_ids()
    assert "5" not in coord.captions
    assert coord.item("5") is None
    assert transport.deleted == ["5"]
    assert coord.item_count == 15


def test_delete_link_nested_in_wrappers(build, transport):
    coord, _ = build(captioned(2))
    coord.images.children[0].remove_children()
    from gallery_form.services.dom import parse_fragment

    for el in parse_fragment(item_html("1", "x", wrapped_delete=True)):
        coord.images.children[0].append_child(el)
    coord.images.children[0].find("a", "image-delete").click()
    assert coord.ordered_ids() == ["2"]
    assert transport.deleted == ["1"]


def test_clicks_elsewhere_do_not_delete(build, transport):
    coord, _ = build(captioned(2))
    coord.item("1").caption_field.click()
    coord.item("1").node.find("img").click()
    assert coord.ordered_ids() == ["1", "2"]
    assert transport.deleted == []


def test_deleting_last_item_hides_description(build):
    coord, _ = build(captioned(1))
    assert coord.delete_item("1") is True
    assert coord.delete_item("1") is False
    assert not coord.images_description.is_shown
    assert coord.submit_button.disabled


def test_delete_crossing_bound_updates_submit_state(build):
    coord, _ = build(captioned(15))
    assert not coord.submit_button.disabled
    coord.delete_item("15")
    assert coord.submit_button.disabled
    assert coord.num_images_error.is_shown


def test_delete_while_idle_rebuilds_drag_surface(build):
    coord, _ = build(captioned(3))
    builds = coord.order.builds
    coord.delete_item("2")
    assert coord.order.builds == builds + 1
    assert [coord.order.item_ids()] == [["1", "3"]]
    assert len(coord.order.group.items) == 2


def test_delete_racing_an_upload_is_seen_by_the_settle_rebuild(build, engine):
    coord, _ = build(captioned(3))
    (f,) = files("4.jpg")
    coord.add_files([f])
    builds = coord.order.builds
    coord.delete_item("1")
    # still uploading: the rebuild waits for the settle step
    assert coord.state is CoordinatorState.UPLOADING
    assert coord.order.builds == builds
    engine.emit(FileUploaded(f.id, item_html("4", "new")))
    assert coord.ordered_ids() == ["2", "3", "4"]
    assert [li for li in coord.order.group.items] == coord.images.children


def test_no_duplicate_ids_after_mixed_inserts_and_deletes(build, engine):
    coord, _ = build(captioned(5))
    _upload(engine, coord, ["6", "7"])
    coord.delete_item("3")
    _upload(engine, coord, ["3", "7", "8"])
    coord.delete_item("6")
    ids = coord.ordered_ids()
    assert len(ids) == len(set(ids))
    assert sorted(ids, key=int) == ["1", "2", "3", "4", "5", "7", "8"]


def test_reorder_after_settle_sends_new_order(build, engine, transport):
    coord, _ = build(captioned(3))
    _upload(engine, coord, ["4"])
    item = coord.item("4").node
    assert coord.order.drag(item, 0) is True
    assert coord.ordered_ids() == ["4", "1", "2", "3"]
    assert transport.reorders == [["4", "1", "2", "3"]]


def test_submit_focus_follows_the_order_on_the_page(build):
    items = captioned(15)
    items[1] = ("2", "")
    items[9] = ("10", "")
    coord, page = build(items)
    assert coord.order.drag(coord.item("10").node, 0)
    assert coord.ordered_ids()[:2] == ["10", "1"]

    decision = coord.attempt_submit()
    assert decision.reason is BlockReason.CAPTIONS
    assert page.active_element is coord.item("10").caption_field


def test_late_rejection_of_a_queued_file_does_not_stall_the_gallery(build, engine):
    coord, _ = build(captioned(15))
    (f,) = files("16.jpg")
    coord.add_files([f])
    coord.confirm_upload()
    builds = coord.order.builds
    engine.emit(UploadError(UploadErrorCode.FILE_SIZE_ERROR, "File size error.", f))
    assert coord.state is CoordinatorState.IDLE
    assert coord.order.builds == builds + 1
    assert coord.submit_button.disabled is False


def _add_editor(page, max_words):
    editor = parse_fragment(
        f'<div class="field"><textarea name="bio" class="editor max-{max_words}"></textarea></div>'
    )[0]
    page.insert_child_at(editor, 0)
    return editor.find("textarea")


def test_word_limit_never_enables_submit_for_a_short_gallery(build):
    coord, page = build(captioned(3))
    _add_editor(page, 2)
    (binding,) = coord.bind_word_limits(TextAreaField)

    binding.field.edit("one two three")
    assert binding.over_limit
    assert coord.submit_button.disabled
    binding.field.edit("one")
    assert not binding.over_limit
    assert binding.error_element() is None
    assert coord.submit_button.disabled
    assert coord.attempt_submit().reason is BlockReason.IMAGE_COUNT


def test_word_limit_is_part_of_the_submission_rules(build):
    coord, page = build(captioned(15))
    textarea = _add_editor(page, 2)
    (binding,) = coord.bind_word_limits(TextAreaField)
    assert binding.data_field.get_attribute("name") == "bio"
    assert textarea.parent.children[0] is binding.data_field

    binding.field.edit("one two three")
    assert coord.submit_button.disabled
    assert coord.is_submittable() is False
    assert coord.attempt_submit().reason is BlockReason.WORD_LIMIT

    binding.field.edit("one two")
    assert coord.submit_button.disabled is False
    assert coord.attempt_submit().allowed


def test_watching_an_existing_binding(build):
    coord, page = build(captioned(15))
    textarea = _add_editor(page, 1)
    binding = WordLimitBinding(TextAreaField(textarea), textarea)
    coord.watch_word_limit(binding)
    binding.field.edit("too many")
    assert coord.attempt_submit().reason is BlockReason.WORD_LIMIT
