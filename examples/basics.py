import asyncio

from resync import ManualScheduler, create_model

# ------------------------------------------------------------------------------------------------

print()
print("=" * 100)
print("Listening to a path")
print("-" * 100)
print()

scheduler = ManualScheduler()
model = create_model(scheduler=scheduler)

log_title = lambda value, previous, passed: print(f"Title changed: {previous!r} -> {value!r}")

# Listeners are registered on a path pattern and receive the event arguments.
listener = model.on("change", "_page.post.title", log_title)
model.set("_page.post.title", "Hello")  # This will call log_title

model.remove_listener("change", listener)
model.set("_page.post.title", "Bye")  # This will not

# ------------------------------------------------------------------------------------------------

print()
print("=" * 100)
print("Wildcards and captures")
print("-" * 100)
print()


# `*` matches one segment and passes it to the listener first.
def log_any_title(post_id, value, previous, passed):
    print(f"Post {post_id} title is now {value!r}")


# `**` matches the rest of the path and passes it as a dotted string.
def log_anything_below(rest, event_type, *args):
    print(f"{event_type} at {rest!r}")


model.on("change", "_page.*.title", log_any_title)
model.on("all", "_page.**", log_anything_below)

model.set("_page.draft.title", "Draft")
model.push("_page.draft.tags", "news")

# ------------------------------------------------------------------------------------------------

print()
print("=" * 100)
print("Scopes, passed context and silence")
print("-" * 100)
print()

# Scopes are views of the same data; paths are relative to them.
draft = model.at("_page.draft")
draft.on("change", "body", lambda value, previous, passed: print(f"Body set by {passed.get('by')}"))

draft.pass_({"by": "editor"}).set("body", "Some text")
draft.silent().set("body", "Nobody hears this")
print(f"Body is now: {draft.get('body')!r}")

# ------------------------------------------------------------------------------------------------

print()
print("=" * 100)
print("Listeners that mutate")
print("-" * 100)
print()


# Mutations made by a listener are delivered after the current event reached everyone.
def count_words(value, previous, passed):
    model.set("_page.draft.words", len(value.split()))


model.on("change", "_page.draft.body", count_words)
model.on("change", "_page.draft.words", lambda value, *args: print(f"Word count: {value}"))
draft.set("body", "Three little words")

# ------------------------------------------------------------------------------------------------

print()
print("=" * 100)
print("Event contexts")
print("-" * 100)
print()

# Tag listeners with a context to remove them all together.
component = model.event_context("sidebar")
component.on("change", "_page.draft.title", lambda *args: print("Sidebar re-renders"))
model.set("_page.draft.title", "Renamed")

component.remove_context_listeners()
model.set("_page.draft.title", "Renamed again")  # The sidebar listener is gone

# ------------------------------------------------------------------------------------------------

print()
print("=" * 100)
print("Awaiting document loads")
print("-" * 100)
print()


async def main():
    # Without a connection documents live only in memory, so loads complete at once.
    local = create_model(is_server=True)
    local.on("unload", "_session.*", lambda doc_id, previous, passed: print(f"Unloaded {doc_id}"))

    await local.fetch_async(["_session.abc"])
    local.set("_session.abc.user", "alice")
    await local.unfetch_doc_async("_session", "abc")


asyncio.run(main())
